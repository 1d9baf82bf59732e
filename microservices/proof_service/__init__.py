"""
Proof Service

Postcard campaign microservice providing:
- Seeds: one-time and recurring postcard campaigns with recipient lists
- Fan-out of a seed into one Lob postcard per recipient
- Proof tracking through mailing, delivery and quality review
- Scheduled execution of due seeds
- Physical-copy photo upload to scan ingestion

Port: 8250
"""

__version__ = "1.0.0"
__service__ = "proof_service"
