class SopranoError(Exception):
    pass


class VoiceProviderError(SopranoError):
    pass


class TranscriptionError(VoiceProviderError):
    pass


class SynthesisProviderError(VoiceProviderError):
    pass


class AudioDeviceError(SopranoError):
    pass


class PermissionDeniedError(AudioDeviceError):
    pass


class DeviceBusyError(AudioDeviceError):
    pass


class NoActiveCaptureError(AudioDeviceError):
    pass


class PlaybackError(AudioDeviceError):
    pass


class CompletionError(SopranoError):
    pass


class DocumentScanError(SopranoError):
    pass


class UserCancelledError(DocumentScanError):
    pass


class DocumentCaptureError(DocumentScanError):
    pass


class DocumentExtractionError(DocumentScanError):
    pass


class SessionError(SopranoError):
    pass


class ConfigurationError(SopranoError):
    pass
