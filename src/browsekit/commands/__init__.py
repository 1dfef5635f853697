"""Built-in CLI sub-commands for browsekit.

* :mod:`~browsekit.commands.recent` -- list, clear, export and import the
  recently-used registry.
* :mod:`~browsekit.commands.config` -- view and modify global settings.

Each module exports a :class:`typer.Typer` sub-application that
:mod:`browsekit.app` mounts on the root app.
"""
