# forge/errors.py
#
# Exhaustion and "no style yet" are plain None results, not exceptions.
# Only the conditions below abort an operation.


class ForgeError(Exception):
    pass


class PersistenceFailure(ForgeError):
    """
    The store is unreachable, the schema is missing, or a transaction failed.
    Nothing was committed for the operation that raised it.
    """


class Unauthorized(ForgeError):
    """Admin capability check failed."""
