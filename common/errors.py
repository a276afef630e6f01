"""Exception hierarchy shared by the renderer, transports and protocol layer."""


class PrintManagerError(Exception):
    """Base class for every error raised by the print manager."""


class InputError(PrintManagerError, ValueError):
    """Payload, template or image input that cannot be processed."""


class DeviceError(PrintManagerError, RuntimeError):
    """The printer could not be reached or rejected the job."""


class ProtocolError(PrintManagerError):
    """A native-messaging frame could not be decoded."""


class QrRenderError(PrintManagerError):
    """The fiscal QR image could not be generated."""


__all__ = [
    "PrintManagerError",
    "InputError",
    "DeviceError",
    "ProtocolError",
    "QrRenderError",
]
