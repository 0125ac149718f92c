"""Project generator -- creates new projects from declared templates.

A run resolves its configuration into a ``GenerationContext``, rewrites the
template tree against it and writes the result either to a local directory or
to a freshly created GitHub repository.

Quick usage::

    from project_generator.config import Settings
    from project_generator.dispatcher import Dispatcher, GenerationRequest

    dispatcher = Dispatcher(Settings.from_env())
    result = await dispatcher.run(GenerationRequest(template=..., config_path="run.yaml"))
"""

__version__ = "0.1.0"
