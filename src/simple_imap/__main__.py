# =============================================================================
# simple-imap Entry Point for `python -m simple_imap`
# =============================================================================
# This module allows simple-imap to be run as a Python module:
#
#   python -m simple_imap fetch INBOX
#
# This is equivalent to running the 'simple-imap' command after installation.
# =============================================================================

import sys

from simple_imap.app import main

if __name__ == "__main__":
    sys.exit(main())
