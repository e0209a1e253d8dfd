__all__ = ['app', 'create_app']


def __getattr__(name: str):
    # Importing app.main builds the ASGI app; keep it off the import path of services and jobs.
    if name in __all__:
        from . import main

        return getattr(main, name)
    raise AttributeError(name)
