"""
API server package: HTTP interface over transfer discovery.

Validates addresses, delegates to TransferService and maps fatal query errors
to 502 responses.
"""
