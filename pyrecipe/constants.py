"""
Status values shared by the recipe compiler, the execution engine
and the external engines.

Every engine call and every ``STATUS`` assignment in a recipe is
checked against ``OK``.
"""

#:int: Good status
OK = 0
#:int: Generic bad status
ERROR = -1
#:int: The engine is no longer usable and should be relaunched
BADENG = 2
#:int: The user aborted processing
ABORT = -2
#:int: Processing died fatally
FATAL = -3
#:int: A recipe could not be parsed
PARSE_ERROR = -4
#:int: The recipe was terminated early, but without error
TERM = -5
#:int: The recipe completed but the observation was marked bad
BADFRAME = -6

STATUS_NAMES = {
    OK: "OK",
    ERROR: "ERROR",
    BADENG: "BADENG",
    ABORT: "ABORT",
    FATAL: "FATAL",
    PARSE_ERROR: "PARSE_ERROR",
    TERM: "TERM",
    BADFRAME: "BADFRAME",
}


def status_name(status):
    """Readable name of a status value, falls back to the number itself"""
    return STATUS_NAMES.get(status, str(status))
