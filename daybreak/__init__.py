"""
Daybreak check-mail - mailbox polling for daybreak report emails.

Modules:
    ingest.doc_types - Document types and subject classification
    ingest.models - Inbound documents, reports and report sets
    ingest.completeness - Complete/partial report policy
    ingest.aggregator - Grouping of documents by report date
    ingest.transport - Mail store capability and IMAP adapter
    ingest.staging - Staging sink for attachment payloads
    ingest.archival - Staging plus batch archival of complete reports
    ingest.health - Mailbox pass health tracking
    ingest.checkmail - Polling pass and CLI entrypoint
    config.settings - YAML configuration value object
    config.secrets - Mail credentials from the environment
"""

__version__ = "0.1.0"
