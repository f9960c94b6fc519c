"""
blueprint package

This package implements blueprint as a CLI-first template instantiation tool.

Key responsibilities are split across modules:
- `schema.py`: parse `blueprint.yml` into questions and template settings
- `answers.py`: resolve questions into an immutable AnswerSet (`prompts.py` asks)
- `paths.py`: evaluate guarded/templated path names into an ordered plan
- `renderer.py`: deterministic rendering/copying of the plan into a destination
- `answers_file.py`: persist answers for later `update` runs
- `hooks.py`: post-generation tasks
- `runner.py`: orchestration of `copy` and `update` runs
- `cli.py`: CLI entrypoint
"""

from __future__ import annotations

from blueprint.runner import RunResult, RunState, copy, update

__all__ = ["RunResult", "RunState", "__version__", "copy", "update"]

__version__ = "0.1.0"
