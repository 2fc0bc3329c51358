"""Built-in CLI sub-commands for docksync.

* :mod:`~docksync.commands.pull` -- sync images and pull them from the mirror.
* :mod:`~docksync.commands.auth` -- log in to GitHub and manage the token.
* :mod:`~docksync.commands.config` -- view settings and manage the proxy.

``auth`` and ``config`` export a :class:`typer.Typer` sub-application;
``pull`` is a plain callback registered directly on the root app.
"""
