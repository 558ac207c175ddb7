from plugins.resources.workers_script.resource import WorkersScriptPlugin

__all__ = ["WorkersScriptPlugin"]
