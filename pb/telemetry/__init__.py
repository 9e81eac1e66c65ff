"""Usage telemetry.

This package only EMITS data. It never reads a response body.

Rules every module here follows:
- Sending happens on the coordinator's worker threads, never on the thread
  that runs the command.
- A failed send is logged at debug level and dropped. It never changes a
  command's output or exit code.
- PB_ANALYTICS=disable turns dispatch into a no-op for the whole process.
"""
