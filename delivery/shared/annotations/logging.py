import inspect
from functools import wraps


def LoggerBinding(name: str = None):
    """
    Inject a configured JohnWickLogger into a class's ``logger`` argument.

    The logger is only created when the caller didn't pass one, so tests can
    still hand in a MagicMock.
    """
    def decorator(cls):
        orig_init = cls.__init__
        sig = inspect.signature(orig_init)
        if "logger" not in sig.parameters:
            raise TypeError(f"{cls.__name__}.__init__ must accept a 'logger' argument")

        @wraps(orig_init)
        def __init__(self, *args, **kwargs):
            bound = sig.bind_partial(self, *args, **kwargs)
            if bound.arguments.get("logger") is None:
                from delivery.config.logger import get_logger
                bound.arguments["logger"] = get_logger(name or cls.__name__)
            orig_init(*bound.args, **bound.kwargs)

        cls.__init__ = __init__
        return cls
    return decorator
