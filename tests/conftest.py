import os
import tempfile

import pytest

# Keep per-run log files out of the working tree; must happen before any
# project module configures logging.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="sip_rebalancer_logs_"))
os.environ.setdefault("AUDIT", "true")

from utils.log_utils import clear_audit_log  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_audit_log():
    clear_audit_log()
    yield
    clear_audit_log()


@pytest.fixture
def groww_rows():
    """Rows shaped like a Groww holdings export: metadata, header, lots, total."""
    return [
        ["Name", "John Doe"],
        ["PAN", "ABCDE1234F"],
        [],
        ["Scheme Name", "Folio No", "Invested Value", "Current Value", "XIRR"],
        ["Nippon Small Cap", "123", "10,000", "₹ 12,000", "10%"],
        ["Nippon Small Cap", "456", "5,000", "₹ 8,000", "20%"],
        ["HDFC Top 100", "789", "50,000", "50,000", "5%"],
        ["Total", "", "", "70,000", ""],
        [],
    ]
