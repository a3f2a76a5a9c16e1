"""Built-in CLI sub-commands for authbroker.

* :mod:`~authbroker.commands.session` -- ``login``, ``logout``,
  ``whoami``, ``token`` and ``delegate``, registered on the root app.
* :mod:`~authbroker.commands.profile` -- add, list, show and remove
  tenant profiles.
* :mod:`~authbroker.commands.config` -- view and modify global settings.
"""
