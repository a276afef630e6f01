"""Native-messaging host launched by the browser extension.

The browser passes the calling extension origin as the first argument; it is
only logged. stdout is reserved for protocol frames.
"""
from __future__ import annotations

import logging
import sys

from config import settings
from transport.dispatcher import PrintService
from transport.native_host import NativeMessagingHost


def main() -> int:
    logging.basicConfig(
        stream=sys.stderr,
        level=settings.SERVICE.get("log_level", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if len(sys.argv) > 1:
        logging.getLogger(__name__).info("Started by %s", sys.argv[1])

    host = NativeMessagingHost(PrintService())
    try:
        return host.serve()
    finally:
        logging.shutdown()


if __name__ == "__main__":
    sys.exit(main())
