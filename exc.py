class ApplicationError(Exception):
    pass


class ProviderError(ApplicationError):
    pass


class DecodeError(ApplicationError):
    """The admitted object could not be decoded into a Pod."""
