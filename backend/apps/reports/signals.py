"""
Signals emitted by the report workflow.

evidence_released: sent after a report is deleted with
    report_id -- id of the deleted report
    refs      -- list of storage references no longer owned by any report
"""

from django.dispatch import Signal

evidence_released = Signal()
