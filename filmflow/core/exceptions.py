"""
Filmflow Custom Exceptions

Exception classes for error handling throughout the analysis core.
"""


class FilmflowError(Exception):
    """Base exception for all Filmflow errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(FilmflowError):
    """Raised when there's an issue with configuration."""
    pass


class MissingCredential(ConfigurationError):
    """Raised when a provider's access credential is absent from the environment."""

    def __init__(self, provider: str, env_keys: list = None):
        env_keys = env_keys or []
        message = f"Missing credential for provider '{provider}'"
        if env_keys:
            message += f" (set one of: {', '.join(env_keys)})"
        super().__init__(message, {"provider": provider, "env_keys": env_keys})
        self.provider = provider


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# LLM ERRORS
# =============================================================================

class LLMError(FilmflowError):
    """Base exception for LLM-related errors."""
    pass


class UnknownProviderError(LLMError):
    """Raised when a provider id is not registered."""

    def __init__(self, provider: str):
        super().__init__(f"Unknown provider: {provider}", {"provider": provider})
        self.provider = provider


class ProviderCallFailure(LLMError):
    """Raised when a single call to one provider fails."""

    def __init__(self, provider: str, reason: str):
        message = f"Provider '{provider}' call failed: {reason}"
        super().__init__(message, {"provider": provider, "reason": reason})
        self.provider = provider
        self.reason = reason


class ContentBlockedError(ProviderCallFailure):
    """Raised when a provider refuses content on safety grounds."""

    @property
    def is_content_block(self) -> bool:
        return True


class UnsupportedCapability(LLMError):
    """Raised when a provider cannot perform the requested operation."""

    def __init__(self, provider: str, capability: str):
        message = f"Provider '{provider}' does not support {capability}"
        super().__init__(message, {"provider": provider, "capability": capability})
        self.provider = provider
        self.capability = capability


class AllProvidersFailed(LLMError):
    """Raised when every provider in a fallback chain has failed."""

    def __init__(self, attempted: list, last_error: Exception = None):
        message = f"All providers failed ({', '.join(attempted)})"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message, {"attempted": list(attempted)})
        self.attempted = list(attempted)
        self.last_error = last_error


# =============================================================================
# EXTRACTION ERRORS
# =============================================================================

class ExtractionFailure(FilmflowError):
    """Raised when no structured value can be recovered from model text."""

    def __init__(self, reason: str, raw_text: str = ""):
        super().__init__(
            f"Structured extraction failed: {reason}",
            {"reason": reason, "raw_length": len(raw_text or "")},
        )
        self.reason = reason
        self.raw_text = raw_text


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class PipelineError(FilmflowError):
    """Base exception for pipeline errors."""
    pass


class PipelineStageError(PipelineError):
    """Raised when a specific pipeline stage fails."""

    def __init__(self, stage_name: str, reason: str):
        message = f"Pipeline stage '{stage_name}' failed: {reason}"
        super().__init__(message, {"stage": stage_name, "reason": reason})
        self.stage_name = stage_name
        self.reason = reason


class StageValidationError(PipelineError):
    """Raised when stage input or output does not have the expected shape."""
    pass


class DependencyFailure(PipelineError):
    """Raised for a stage skipped because an upstream stage did not complete."""

    def __init__(self, stage_name: str, upstream: list):
        message = (
            f"Stage '{stage_name}' skipped: upstream stage(s) "
            f"{', '.join(upstream)} did not complete"
        )
        super().__init__(message, {"stage": stage_name, "upstream": list(upstream)})
        self.stage_name = stage_name
        self.upstream = list(upstream)


class InvalidStageTransition(PipelineError):
    """Raised when a stage record would move backwards."""

    def __init__(self, stage_name: str, current: str, requested: str):
        message = f"Invalid transition for stage '{stage_name}': {current} -> {requested}"
        super().__init__(message, {"stage": stage_name, "from": current, "to": requested})


class PipelineAlreadyRunning(PipelineError):
    """Raised when a second run is requested for a project that is processing."""

    def __init__(self, project_id: str, kind: str = "analysis"):
        message = f"A {kind} run is already in progress for project '{project_id}'"
        super().__init__(message, {"project_id": project_id, "kind": kind})
        self.project_id = project_id


class PipelineCancelled(PipelineError):
    """Raised by a stage handler that observes a cancellation request."""

    def __init__(self, project_id: str):
        super().__init__(f"Run cancelled for project '{project_id}'", {"project_id": project_id})
        self.project_id = project_id


# =============================================================================
# VISUAL GENERATION ERRORS
# =============================================================================

class ImageGenerationError(FilmflowError):
    """Raised when an image backend fails to produce an image."""

    def __init__(self, backend: str, reason: str):
        message = f"Image generation via '{backend}' failed: {reason}"
        super().__init__(message, {"backend": backend, "reason": reason})
        self.backend = backend
        self.reason = reason


class CircuitOpen(FilmflowError):
    """Internal signal that a batch is pausing after consecutive failures."""

    def __init__(self, failures: int, cooldown_seconds: float):
        message = (
            f"Circuit open after {failures} consecutive failure(s); "
            f"pausing {cooldown_seconds:.1f}s"
        )
        super().__init__(message, {"failures": failures, "cooldown": cooldown_seconds})
        self.failures = failures
        self.cooldown_seconds = cooldown_seconds


# =============================================================================
# STORAGE / INTEGRATION ERRORS
# =============================================================================

class NotFoundError(FilmflowError):
    """Raised when a record does not exist in the store."""

    def __init__(self, kind: str, key):
        super().__init__(f"{kind} not found: {key}", {"kind": kind, "key": key})


class CRMError(FilmflowError):
    """Raised when the CRM collaborator rejects a request."""

    def __init__(self, reason: str, status_code: int = None):
        details = {"reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(f"CRM request failed: {reason}", details)
        self.status_code = status_code
