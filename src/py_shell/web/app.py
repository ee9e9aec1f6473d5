"""Flask application factory for the py-shell job dashboard.

The ``create_app`` function wraps a shell (a fresh one unless given)
and returns a Flask app with four endpoints:

- ``GET /api/jobs`` — list every job in the shell's table.
- ``GET /api/jobs/<id>`` — show one job, 404 if unknown.
- ``POST /api/jobs/<id>/signal`` — deliver ``{"signal": "TERM"}``.
- ``GET /api/status`` — active/waiting counts and controller count.
"""

from __future__ import annotations

from signal import Signals
from typing import Any

from flask import Flask, Response, jsonify, request

from py_shell.errors import SignalError
from py_shell.jobs import ExitStatus, Job
from py_shell.shell import Shell

_HTTP_BAD_REQUEST = 400
_HTTP_NOT_FOUND = 404


def _signal_field(status: ExitStatus | None) -> str | int | None:
    """Return the signal's name, or its number when it has no name."""
    if status is None or status.signal is None:
        return None
    if isinstance(status.signal, Signals):
        return status.signal.name
    return status.signal


def job_to_dict(job: Job) -> dict[str, Any]:
    """Return a JSON-ready view of *job*."""
    status = job.exit_status
    return {
        "id": job.job_id,
        "name": job.name,
        "pid": job.pid,
        "status": str(job.status),
        "exit_code": status.code if status is not None else None,
        "signal": _signal_field(status),
    }


def create_app(shell: Shell | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        shell: The shell whose jobs are shown (a new one if omitted).

    Returns:
        A configured Flask application ready to serve.

    """
    sh = shell if shell is not None else Shell()

    app = Flask(__name__)

    @app.route("/api/jobs")
    def list_jobs() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return every job in the table."""
        return jsonify({"jobs": [job_to_dict(j) for j in sh.jobs]})

    @app.route("/api/jobs/<int:job_id>")
    def show_job(job_id: int) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return one job."""
        job = sh.controller.get(job_id)
        if job is None:
            return jsonify({"error": f"Job {job_id} not found"}), _HTTP_NOT_FOUND
        return jsonify(job_to_dict(job))

    @app.route("/api/jobs/<int:job_id>/signal", methods=["POST"])
    def signal_job(job_id: int) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Deliver a signal to a job.

        Expects JSON body: ``{"signal": "TERM"}``

        """
        job = sh.controller.get(job_id)
        if job is None:
            return jsonify({"error": f"Job {job_id} not found"}), _HTTP_NOT_FOUND
        data = request.get_json(silent=True)
        if data is None or "signal" not in data:
            return jsonify({"error": "Missing 'signal' field"}), _HTTP_BAD_REQUEST
        try:
            sh.signal(job, data["signal"])
        except SignalError as e:
            return jsonify({"error": str(e)}), _HTTP_BAD_REQUEST
        sh.controller.poll(job)
        return jsonify(job_to_dict(job))

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return job counts for status polling."""
        controller = sh.controller
        return jsonify(
            {
                "active": len(controller.active_jobs),
                "waiting": len(controller.waiting_jobs),
                "terminated": len(controller.terminated_jobs),
                "controllers": len(controller.registry),
            }
        )

    return app


def main() -> None:
    """Run the dashboard development server.

    This is the ``py-shell-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
