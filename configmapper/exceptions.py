__all__ = (
    'InvalidInput',
    'SchemaError',
)


class InvalidInput(ValueError):
    """
    Raised when a ConfigMap cannot be built from the given parameters.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SchemaError(ValueError):
    """
    Raised when a document violates one of the numbered ConfigMap rules.
    """

    def __init__(self, rule: int, reason: str):
        super().__init__(f'rule {rule}: {reason}')
        self.rule = rule
        self.reason = reason
