"""
Config evolution service - natural-language changes to live server config.

An admin describes the change in plain language ("make logging more
verbose"), a language model proposes a new value for one allow-listed
field, and the proposal is validated locally before anything is written.

Pipeline (linear, no retries, the first failure is terminal):
1. Gate          - admin shared secret                 -> Forbidden
2. Scope check   - target must be allow-listed         -> InvalidTarget
3. Prompt        - current value, legal values, output contract
4. Model call    - via the LLM gateway                 -> UpstreamError
5. Parse         - JSON error / JSON value / raw text  -> ModelRejected
6. Validate      - value must be a legal value         -> InvalidProposal
7. Backup        - copy of the config file at a new path -> BackupFailed
8. Apply         - ConfigStore.save with one field changed -> ApplyFailed
9. Confirm       - ConfigStore.reload, return the audit record

Steps 1-7 never touch the config store. The backup in step 7 always
precedes the write in step 8.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from core.auth import verify_admin_secret
from core.llm import LLMGateway, LLMRequest
from core.persistence import DestinationExistsError, PersistenceError, copy_file
from core.services.config_service import ConfigStore, ConfigStoreError
from models.server_config import LOG_LEVELS

logger = logging.getLogger(__name__)

EVOLUTION_TEMPERATURE = 0.2
EVOLUTION_MAX_OUTPUT_TOKENS = 50
MAX_BACKUP_ATTEMPTS = 100


@dataclass(frozen=True)
class EvolvableField:
    """A config field the pipeline is allowed to change."""

    path: Tuple[str, ...]
    allowed_values: Tuple[str, ...]
    json_key: str  # key the model may use when answering with a JSON object

    @property
    def section(self) -> str:
        return self.path[0]


ALLOWED_TARGETS: Dict[str, EvolvableField] = {
    "logging.level": EvolvableField(path=("logging", "level"), allowed_values=LOG_LEVELS, json_key="level"),
}


class EvolutionErrorKind(str, Enum):
    FORBIDDEN = "Forbidden"
    INVALID_TARGET = "InvalidTarget"
    VALIDATION_ERROR = "ValidationError"
    MODEL_REJECTED = "ModelRejected"
    INVALID_PROPOSAL = "InvalidProposal"
    UPSTREAM_ERROR = "UpstreamError"
    BACKUP_FAILED = "BackupFailed"
    APPLY_FAILED = "ApplyFailed"


class ConfigEvolutionError(Exception):
    """A pipeline stage rejected the request.

    Attributes:
        kind: Stage at which the pipeline stopped
        details: Diagnostic context (candidate, allowed values, current value, ...)
    """

    def __init__(self, kind: EvolutionErrorKind, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}


class CandidateKind(str, Enum):
    JSON_ERROR = "json_error"
    JSON_VALUE = "json_value"
    RAW_STRING = "raw_string"


@dataclass
class Candidate:
    """Model output after parsing. For JSON_ERROR, value is the model's reason."""

    kind: CandidateKind
    value: str


@dataclass
class ConfigChangeProposal:
    target_field: str
    natural_language_request: str
    proposed_value: str
    valid: bool
    rejection_reason: Optional[str] = None


@dataclass
class EvolutionResult:
    """Audit record of an applied change."""

    target: str
    previous_value: Any
    new_value: str
    backup_path: str
    request: str
    proposal: Optional[ConfigChangeProposal] = field(default=None, repr=False)


def parse_candidate(text: str, json_key: str = "level") -> Candidate:
    """
    Turn raw model output into a candidate value.

    - JSON object with a string "error"     -> JSON_ERROR (the model declined)
    - JSON object with a string ``json_key`` -> JSON_VALUE (trimmed)
    - anything else                         -> RAW_STRING (trimmed raw text)
    """
    stripped = (text or "").strip()
    try:
        parsed = json.loads(stripped)
    except ValueError:
        return Candidate(kind=CandidateKind.RAW_STRING, value=stripped)

    if isinstance(parsed, dict):
        if isinstance(parsed.get("error"), str):
            return Candidate(kind=CandidateKind.JSON_ERROR, value=parsed["error"])
        if isinstance(parsed.get(json_key), str):
            return Candidate(kind=CandidateKind.JSON_VALUE, value=parsed[json_key].strip())
    return Candidate(kind=CandidateKind.RAW_STRING, value=stripped)


def _get_path(config: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    node: Any = config
    for key in path:
        node = node[key]
    return node


def _set_path(config: Dict[str, Any], path: Tuple[str, ...], value: Any) -> None:
    node = config
    for key in path[:-1]:
        node = node[key]
    node[path[-1]] = value


class ConfigEvolutionService:
    """
    Drives a natural-language request through the evolution pipeline.

    Args:
        config_store: Store that owns the live configuration
        llm_gateway: Gateway used to ask the model for a proposal
        admin_secret: Shared secret required to run the pipeline
        provider: LLM provider name passed to the gateway
    """

    def __init__(
        self,
        config_store: ConfigStore,
        llm_gateway: LLMGateway,
        admin_secret: Optional[str],
        provider: str = "openai",
    ):
        self.config_store = config_store
        self.llm_gateway = llm_gateway
        self.admin_secret = admin_secret
        self.provider = provider

    def build_messages(self, target: str, evolvable: EvolvableField, current_section: Any, request: str) -> list:
        """System prompt with the current section and output contract, user prompt with the request."""
        current_json = json.dumps(current_section, indent=2)
        allowed = ", ".join(f'"{value}"' for value in evolvable.allowed_values)
        system_prompt = (
            "You are an intelligent server configuration assistant. Your task is to modify a server's "
            "JSON configuration file based on user requests.\n"
            f'The server configuration is stored in a JSON file. We are focusing on the "{evolvable.section}" section.\n'
            f'The current "{evolvable.section}" section of the config is:\n'
            f"{current_json}\n\n"
            f"The allowed values for '{target}' are: {allowed}.\n"
            f"Based on the user's request, determine the new value for '{target}'.\n"
            f"Output *only* the new string value for the '{target}' property (e.g., \"{evolvable.allowed_values[0]}\").\n"
            "If the request is unclear or asks for an invalid value, output a JSON object like: "
            '{"error": "Invalid value requested or request unclear."}.'
        )
        user_prompt = f'User request: "{request}"\nWhat is the new string value for "{target}"?'
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    def _backup_path(self, timestamp: int, attempt: int = 0) -> Path:
        config_path = self.config_store.config_path
        suffix = f".{attempt}" if attempt else ""
        return config_path.with_name(
            f"{config_path.stem}.backup.{timestamp}{suffix}{config_path.suffix or '.json'}"
        )

    async def _backup(self) -> Path:
        """Copy the config file to a backup path that did not exist before.

        Raises:
            PersistenceError: If the copy fails or no free path is found
        """
        timestamp = int(time.time() * 1000)
        for attempt in range(MAX_BACKUP_ATTEMPTS):
            backup_path = self._backup_path(timestamp, attempt)
            try:
                await copy_file(self.config_store.config_path, backup_path, overwrite=False)
            except DestinationExistsError:
                continue
            return backup_path
        raise PersistenceError(
            f"No free backup path after {MAX_BACKUP_ATTEMPTS} attempts",
            self._backup_path(timestamp),
        )

    async def evolve(self, target: str, request: str, credential: Optional[str]) -> EvolutionResult:
        """
        Run the pipeline for one request.

        Args:
            target: Dotted config field to change, must be allow-listed
            request: Natural-language description of the change
            credential: Admin shared secret presented by the caller

        Returns:
            EvolutionResult audit record

        Raises:
            ConfigEvolutionError: At the first failing stage
        """
        # 1. Gate
        if not verify_admin_secret(credential, self.admin_secret):
            raise ConfigEvolutionError(EvolutionErrorKind.FORBIDDEN, "Forbidden: Admin access required.")

        # 2. Scope check
        evolvable = ALLOWED_TARGETS.get(target)
        if evolvable is None:
            raise ConfigEvolutionError(
                EvolutionErrorKind.INVALID_TARGET,
                f"Invalid configuration target. Only {', '.join(sorted(ALLOWED_TARGETS))} "
                "can be evolved.",
                {"target": target, "allowedTargets": sorted(ALLOWED_TARGETS)},
            )
        if not isinstance(request, str) or not request.strip():
            raise ConfigEvolutionError(
                EvolutionErrorKind.VALIDATION_ERROR,
                "Natural language request string is required.",
            )

        # 3. Prompt
        current = (await self.config_store.get()).to_file_dict()
        current_section = current.get(evolvable.section)
        current_value = _get_path(current, evolvable.path)
        messages = self.build_messages(target, evolvable, current_section, request)

        # 4. Model call
        result = await self.llm_gateway.complete(
            self.provider,
            LLMRequest(
                messages=messages,
                temperature=EVOLUTION_TEMPERATURE,
                max_output_tokens=EVOLUTION_MAX_OUTPUT_TOKENS,
            ),
        )
        if not result.ok:
            logger.error(f"[Evolve Config] LLM gateway error: {result.error.kind}: {result.error.message}")
            raise ConfigEvolutionError(
                EvolutionErrorKind.UPSTREAM_ERROR,
                "LLM service failed to process the request.",
                {
                    "errorKind": result.error.kind,
                    "providerMessage": result.error.message,
                    "providerError": result.error.provider_error,
                },
            )

        # 5. Parse
        candidate = parse_candidate(result.text, evolvable.json_key)
        if candidate.kind is CandidateKind.JSON_ERROR:
            logger.info(f"[Evolve Config] Model declined request {request!r}: {candidate.value}")
            raise ConfigEvolutionError(
                EvolutionErrorKind.MODEL_REJECTED,
                "LLM indicated an error with the request.",
                {
                    "llmError": candidate.value,
                    "naturalLanguageRequest": request,
                    "currentValue": current_value,
                },
            )

        # 6. Validate
        proposal = ConfigChangeProposal(
            target_field=target,
            natural_language_request=request,
            proposed_value=candidate.value,
            valid=candidate.value in evolvable.allowed_values,
        )
        if not proposal.valid:
            proposal.rejection_reason = "value not in allowed set"
            raise ConfigEvolutionError(
                EvolutionErrorKind.INVALID_PROPOSAL,
                "Invalid value proposed by LLM or request too vague.",
                {
                    "llmProposal": candidate.value,
                    "allowedValues": list(evolvable.allowed_values),
                    "naturalLanguageRequest": request,
                    "currentValue": current_value,
                },
            )

        # 7. Backup
        try:
            backup_path = await self._backup()
        except PersistenceError as e:
            logger.error(f"[Evolve Config] Backup failed, not applying change: {e}")
            raise ConfigEvolutionError(
                EvolutionErrorKind.BACKUP_FAILED,
                "Failed to back up the configuration file; change not applied.",
                {"details": str(e), "llmProposal": candidate.value, "naturalLanguageRequest": request},
            ) from e
        logger.info(f"[Evolve Config] Configuration backed up to {backup_path}")

        # 8. Apply
        updated = (await self.config_store.get()).to_file_dict()
        previous_value = _get_path(updated, evolvable.path)
        _set_path(updated, evolvable.path, candidate.value)
        try:
            await self.config_store.save(updated)
        except ConfigStoreError as e:
            logger.error(f"[Evolve Config] Error applying configuration change: {e}")
            raise ConfigEvolutionError(
                EvolutionErrorKind.APPLY_FAILED,
                "Failed to apply configuration change.",
                {
                    "details": str(e),
                    "llmProposal": candidate.value,
                    "naturalLanguageRequest": request,
                    "backupPath": str(backup_path),
                },
            ) from e

        # 9. Confirm
        await self.config_store.reload()
        logger.info(
            f"[Evolve Config] {target}: {previous_value!r} -> {candidate.value!r} "
            f"(backup {backup_path}, request {request!r})"
        )
        return EvolutionResult(
            target=target,
            previous_value=previous_value,
            new_value=candidate.value,
            backup_path=str(backup_path),
            request=request,
            proposal=proposal,
        )
