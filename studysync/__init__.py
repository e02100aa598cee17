"""StudySync: coordination server for webcam-recorded survey studies.

- identity.py: display name -> stable participant id
- registry.py: in-memory participant records and live connections
- relay.py: idempotent stage notifications, relayed to the participant
- persistence.py: per-participant JSON snapshots (SFTP or local disk)
- realtime_ws.py: participant WebSocket channel
- main.py: FastAPI application
"""
