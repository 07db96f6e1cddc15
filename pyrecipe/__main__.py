"""
pyrecipe command-line interface.

Usage:
    pyrecipe run UFTI obs/*.fits --output-dir reduced
    pyrecipe run UFTI obs/*.fits --recipe REDUCE_DARK --resume
    pyrecipe compile UFTI REDUCE_DARK --debug
    pyrecipe primitives UFTI REDUCE_DARK
    pyrecipe calib choose UFTI dark obs/f0042.fits
    pyrecipe calib add UFTI dark reduced/dark_0012.fits
"""

import click


def make_resolver(recipe_dir, primitive_dir):
    from .resolver import FileResolver

    return FileResolver(recipe_dirs=list(recipe_dir), primitive_dirs=list(primitive_dir))


def search_options(func):
    """--recipe-dir and --primitive-dir, shared by all commands that compile"""
    func = click.option(
        "--primitive-dir",
        "-P",
        multiple=True,
        type=click.Path(file_okay=False),
        help="Additional primitive directory, searched before the instrument's",
    )(func)
    func = click.option(
        "--recipe-dir",
        "-R",
        multiple=True,
        type=click.Path(file_okay=False),
        help="Additional recipe directory, searched before the instrument's",
    )(func)
    return func


@click.group()
@click.version_option(package_name="pyrecipe-astro")
def cli():
    """pyrecipe - Recipe driven data reduction pipeline."""
    pass


@cli.command()
@click.argument("instrument")
@click.argument("files", nargs=-1, required=True)
@click.option("--output-dir", "-o", default=".", help="Output directory")
@click.option("--recipe", "-r", default=None, help="Recipe for all observations")
@click.option("--config", "-c", default=None, help="Configuration file (json)")
@click.option(
    "--parameters", "-p", default=None, help="Recipe parameter file (json)"
)
@click.option("--debug", is_flag=True, help="Trace engine calls, dump failed recipes")
@click.option("--batch", is_flag=True, help="Group all observations before processing")
@click.option("--resume", is_flag=True, help="Continue after a failed observation")
@click.option("--log-file", default=None, help="Write a debug log to this file")
@search_options
def run(
    instrument,
    files,
    output_dir,
    recipe,
    config,
    parameters,
    debug,
    batch,
    resume,
    log_file,
    recipe_dir,
    primitive_dir,
):
    """Process observation files.

    INSTRUMENT: Name of the instrument (e.g., UFTI)
    FILES: Observation files, processed in the given order
    """
    from . import util
    from .errors import CalibrationError, RecipeError
    from .pipeline import Pipeline

    if log_file is not None:
        util.start_logging(log_file)

    try:
        pipeline = Pipeline(
            instrument,
            output_dir,
            config=config,
            resolver=make_resolver(recipe_dir, primitive_dir),
            recipe=recipe,
            parameters=parameters,
            debug=debug,
            batch=batch,
            resume=resume,
        )
        outcomes = pipeline.add(files).run()
    except (RecipeError, CalibrationError, ValueError, OSError) as ex:
        raise click.ClickException(str(ex)) from None

    for outcome in outcomes:
        click.echo(str(outcome))
    if any(o.error is not None for o in outcomes):
        raise SystemExit(1)


@cli.command("compile")
@click.argument("instrument")
@click.argument("recipe")
@click.option("--debug", is_flag=True, help="Include trace statements")
@click.option("--check", is_flag=True, help="Also check the Python syntax")
@search_options
def compile_recipe(instrument, recipe, debug, check, recipe_dir, primitive_dir):
    """Print the compiled listing of a recipe.

    INSTRUMENT: Name of the instrument
    RECIPE: Name of the recipe
    """
    from .errors import CompileError
    from .recipe import Recipe

    recipe = Recipe(recipe, instrument, make_resolver(recipe_dir, primitive_dir), debug=debug)
    try:
        compiled = recipe.compile()
    except CompileError as ex:
        raise click.ClickException(str(ex)) from None

    for i, line in enumerate(compiled.listing, start=1):
        click.echo(f"{i:5d}: {line}")

    if check:
        errors = recipe.check_syntax()
        for statement, ex in errors:
            click.echo(
                f"Syntax error at line {statement.position} "
                f"({statement.source}:{statement.lineno}): {ex.msg}",
                err=True,
            )
        if errors:
            raise SystemExit(1)


@cli.command()
@click.argument("instrument")
@click.argument("recipe")
@click.option("--flat", is_flag=True, help="List each primitive once, in order of use")
@search_options
def primitives(instrument, recipe, flat, recipe_dir, primitive_dir):
    """Show the primitives used by a recipe.

    INSTRUMENT: Name of the instrument
    RECIPE: Name of the recipe
    """
    from .errors import CompileError
    from .recipe import Recipe

    recipe = Recipe(recipe, instrument, make_resolver(recipe_dir, primitive_dir))
    try:
        if flat:
            for name in recipe.primitives():
                click.echo(name)
            return
        tree = recipe.primitive_tree()
    except CompileError as ex:
        raise click.ClickException(str(ex)) from None

    def show(branches, depth):
        for name, children in branches:
            click.echo("  " * depth + name)
            show(children, depth + 1)

    click.echo(recipe.name)
    show(tree, 1)


@cli.group()
def calib():
    """Maintain calibration indices."""
    pass


def calib_for(instrument, output_dir, directory):
    from .calibration import Calib
    from .configuration import load_config

    config = load_config(None, instrument)["calibration"]
    return Calib(
        instrument,
        output_dir,
        directories=list(directory) + config["directories"],
        warn=config["warn"],
        time_field=config["time_field"],
    )


@calib.command("choose")
@click.argument("instrument")
@click.argument("kind")
@click.argument("file")
@click.option("--output-dir", "-o", default=".", help="Directory of the index files")
@click.option("--calib-dir", "-d", multiple=True, help="Directory with rules files")
@click.option("--before", is_flag=True, help="Only consider calibrations taken before")
def calib_choose(instrument, kind, file, output_dir, calib_dir, before):
    """Select the calibration for an observation.

    INSTRUMENT: Name of the instrument
    KIND: Calibration kind (e.g., dark, flat)
    FILE: Observation that needs calibrating
    """
    from .errors import CalibrationError
    from .frame import Frame

    cal = calib_for(instrument, output_dir, calib_dir)
    try:
        cal.frame = Frame(file, instrument)
        click.echo(cal.get(kind, negative=before))
    except (CalibrationError, OSError) as ex:
        raise click.ClickException(str(ex)) from None


@calib.command("add")
@click.argument("instrument")
@click.argument("kind")
@click.argument("file")
@click.option("--output-dir", "-o", default=".", help="Directory of the index files")
@click.option("--calib-dir", "-d", multiple=True, help="Directory with rules files")
@click.option("--key", "-k", default=None, help="Index key (default: the file name)")
def calib_add(instrument, kind, file, output_dir, calib_dir, key):
    """Add a calibration file to its index.

    INSTRUMENT: Name of the instrument
    KIND: Calibration kind (e.g., dark, flat)
    FILE: The calibration file
    """
    import os.path

    from .errors import CalibrationError
    from .frame import Frame

    cal = calib_for(instrument, output_dir, calib_dir)
    key = key or os.path.basename(file)
    try:
        frame = Frame(file, instrument)
        cal.index(kind).add(key, frame.uhdr)
    except (CalibrationError, OSError) as ex:
        raise click.ClickException(str(ex)) from None
    click.echo(f"Added {key} to index.{kind}")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
