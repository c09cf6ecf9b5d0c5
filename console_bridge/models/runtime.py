"""Python stand-ins for page runtime values that have no native Python form."""


class _Undefined:
    """Singleton marking a JavaScript ``undefined`` value.

    Playwright collapses ``undefined`` into ``None`` when materializing
    handles, so callers that can tell the two apart pass ``UNDEFINED``.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()
