"""Error taxonomy for the capture and post-processing pipeline."""


class ScribeError(Exception):
    """Base class for all Scribe errors."""


class ConfigurationError(ScribeError):
    """Required configuration is missing or invalid."""


class ConnectionTimeout(ScribeError):
    """A voice connection never reached the ready state."""


class TransientDisconnect(ScribeError):
    """Connection dropped but recovered within the reconnect window."""


class PermanentDisconnect(ScribeError):
    """Connection dropped and did not recover within the reconnect window."""


class CaptureSubscriptionError(ScribeError):
    """A per-speaker audio stream failed."""

    def __init__(self, speaker_id: str, message: str):
        super().__init__(f"Capture failed for speaker {speaker_id}: {message}")
        self.speaker_id = speaker_id


class MergeFailure(ScribeError):
    """No valid audio was available to merge."""


class TranscodeFailure(ScribeError):
    """The merged track could not be converted to the delivery codec."""


class SummarizationFailure(ScribeError):
    """The transcription or summarization service returned an error."""


class InputTooLarge(SummarizationFailure):
    """The input exceeds what the service accepts; retrying cannot help."""


class UploadFailure(ScribeError):
    """The recording could not be uploaded."""


class DeliveryFailure(ScribeError):
    """The outbound notification could not be posted."""
