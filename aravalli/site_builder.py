# aravalli/site_builder.py
"""AI site builder: let the model propose rewrites of front-end files.

preview() runs select -> read -> generate and returns proposed changes
without touching disk. apply() writes a confirmed change set through
FileAccessService.write_many, all or nothing.
"""
import difflib
import enum
import json
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .errors import AppError, ExternalServiceError, ValidationError
from .file_access import FileAccessService
from .gemini_client import GeminiClient
from .log import get_logger

logger = get_logger(__name__)


class BuilderState(str, enum.Enum):
    IDLE = "Idle"
    SELECTING = "Selecting"
    READING = "Reading"
    GENERATING = "Generating"
    PREVIEW_READY = "PreviewReady"
    APPLYING = "Applying"
    APPLIED = "Applied"
    DISCARDED = "Discarded"


SELECTION_PROMPT = """
You are a senior front-end developer analyzing a project codebase.
The user wants to make a change. Your task is to identify which files need to be edited.
User Prompt: "{prompt}"

Available Files:
{files}

Analyze the user's prompt and the file list, and decide which files are necessary to modify.
Return ONLY a JSON object with a single key "files" that is an array of the file paths.
Example: {{ "files": ["static/index.html", "static/app.js"] }}
"""

CODE_PROMPT = """
You are an expert front-end developer. Your task is to modify the following code files based on the user's request.
User Request: "{prompt}"

Current Code:
{code}

Return a JSON object where keys are the file paths and values are the COMPLETE updated source code for that file.
Ensure the code is complete and functional. Only include files that you have modified.
Return ONLY the JSON.
"""


@dataclass
class FileChange:
    path: str
    original: str
    updated: str

    @property
    def diff(self) -> str:
        return "".join(difflib.unified_diff(
            self.original.splitlines(keepends=True),
            self.updated.splitlines(keepends=True),
            fromfile=f"a/{self.path}",
            tofile=f"b/{self.path}",
        ))

    def to_dict(self) -> dict:
        return {"path": self.path, "original": self.original, "updated": self.updated, "diff": self.diff}


def _format_code(contents: Dict[str, str]) -> str:
    return "\n".join(f"FILE: {path}\n```\n{code}\n```\n" for path, code in contents.items())


class SiteBuilder:
    def __init__(self, files: FileAccessService, llm: Optional[GeminiClient] = None,
                 record_prompt: Optional[Callable[[str], None]] = None):
        self.files = files
        self.llm = llm
        self.record_prompt = record_prompt
        self.state = BuilderState.IDLE
        self.error: Optional[str] = None

    def _enter(self, state: BuilderState) -> None:
        logger.debug("Site builder: %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(self, error: AppError) -> None:
        logger.warning("Site builder failed in %s: %s", self.state.value, error.message)
        self.error = error.message
        self._enter(BuilderState.IDLE)

    async def select_files(self, prompt: str) -> List[str]:
        self._enter(BuilderState.SELECTING)
        available = self.files.list_files()
        selection = await self.llm.generate_json(
            SELECTION_PROMPT.format(prompt=prompt, files=json.dumps(available, indent=2))
        )
        selected = selection.get("files") if isinstance(selection, dict) else None
        if not isinstance(selected, list):
            selected = []
        targets = []
        for path in selected:
            if isinstance(path, str) and path not in targets:
                targets.append(path)
        if not targets:
            raise ExternalServiceError("AI could not identify any files to edit for this request.")
        logger.info("AI selected %d file(s): %s", len(targets), targets)
        return targets

    def read_files(self, paths: List[str]) -> Dict[str, str]:
        self._enter(BuilderState.READING)
        contents: Dict[str, str] = {}
        for path in paths:
            try:
                contents[path] = self.files.read_file(path)
            except AppError as e:
                raise ExternalServiceError(f"Failed to read {path}") from e
        return contents

    async def generate_changes(self, prompt: str, contents: Dict[str, str]) -> List[FileChange]:
        self._enter(BuilderState.GENERATING)
        new_code = await self.llm.generate_json(CODE_PROMPT.format(prompt=prompt, code=_format_code(contents)))
        if not isinstance(new_code, dict):
            new_code = {}

        changes = []
        for path, updated in new_code.items():
            if path not in contents or not isinstance(updated, str):
                logger.warning("Ignoring proposed change for unselected or non-text path %r", path)
                continue
            changes.append(FileChange(path=path, original=contents[path], updated=updated))
        if not changes:
            raise ExternalServiceError("AI did not suggest any code changes.")
        return changes

    async def preview(self, prompt: str) -> List[FileChange]:
        if not prompt or not prompt.strip():
            raise ValidationError("Please enter a prompt.")
        self.error = None
        try:
            targets = await self.select_files(prompt)
            contents = self.read_files(targets)
            changes = await self.generate_changes(prompt, contents)
        except AppError as e:
            self._fail(e)
            raise
        self._enter(BuilderState.PREVIEW_READY)
        if self.record_prompt is not None:
            self.record_prompt(prompt)
        return changes

    def apply(self, changes: Dict[str, str]) -> List[str]:
        if not changes:
            raise ValidationError("No changes to apply")
        self._enter(BuilderState.APPLYING)
        try:
            written = self.files.write_many(changes)
        except AppError as e:
            self._fail(e)
            raise
        self._enter(BuilderState.APPLIED)
        return written

    def discard(self) -> None:
        self._enter(BuilderState.DISCARDED)
