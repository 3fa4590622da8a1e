from __future__ import annotations

from django.dispatch import Signal

# Sent after the creating transaction commits. kwargs: order
order_created = Signal()

# Sent after each lifecycle transition commits.
# kwargs: order, previous_status, actor
order_status_changed = Signal()
