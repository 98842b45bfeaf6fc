from __future__ import annotations


class BunchError(Exception):
    code = "BUNCH_ERROR"


class SpecParseError(BunchError, ValueError):
    code = "INVALID_SPEC"

    def __init__(self, spec: str):
        self.spec = spec
        super().__init__(f"Input cannot be parsed as a valid repo spec ('{spec}').")


class ConfigParseError(BunchError):
    code = "INVALID_CONFIGURATION"

    def __init__(self, path: str, *, tip: str = ""):
        self.path = path
        self.tip = tip
        super().__init__(
            f"Parse error when loading {path}; please check it's proper YAML "
            f"and that nested entries are consistently indented{tip}"
        )


class ConflictError(BunchError):
    code = "BUNCH_CONFLICT"

    def __init__(
        self,
        name: str,
        registered: str,
        requested: str,
        *,
        source: str = "the project root",
    ):
        self.name = name
        self.registered = registered
        self.requested = requested
        super().__init__(
            f'Bunch "{name}" is already instantiated at "{registered}", '
            f'while {source} requested "{requested}".'
        )


class NotFoundError(BunchError, LookupError):
    code = "BUNCH_NOT_FOUND"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"The current configuration doesn't reference {name}")


class FetchError(BunchError):
    code = "FETCH_FAILED"

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(message or f"Failed to clone {source}")


class InvalidReferenceError(BunchError):
    code = "INVALID_REFERENCE"

    def __init__(self, name: str, reference: str):
        self.name = name
        self.reference = reference
        super().__init__(
            f'"{reference}" is not a git reference of {name}. '
            "Bunches only accept git idioms as references. "
            "Semver ranges are not supported."
        )
