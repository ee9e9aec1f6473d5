"""Browser-facing job dashboard for py-shell.

This package provides a Flask application exposing one shell's job
table over HTTP.  It is an **optional** extra — install with::

    pip install py-shell[web]

The ``create_app`` factory in ``app.py`` serves four endpoints:

- ``GET /api/jobs`` — the job table.
- ``GET /api/jobs/<id>`` — one job.
- ``POST /api/jobs/<id>/signal`` — deliver a signal to a job.
- ``GET /api/status`` — job counts and registered controllers.
"""
