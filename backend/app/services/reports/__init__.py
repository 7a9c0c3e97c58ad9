"""
Entry report export and run execution.

Submodules: fields (header labels), recurrence (next fire time),
exporter (incremental CSV export), runner (run state machine).
"""
