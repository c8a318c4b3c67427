"""
Messaging application.

Buyer/seller conversations about marketplace listings, with per-side
unread counters kept consistent under concurrent sends and reads.

Usage:
    from messaging.services import MessagingService, UnreadAggregator
"""
