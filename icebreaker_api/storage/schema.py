"""PostgreSQL schema for the document store."""

NOTIFY_CHANNEL = "document_changes"

# Helper function for auto-updating timestamps
CREATE_UPDATED_AT_TRIGGER = """
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

# Push every committed change to LISTEN-ing subscribers
CREATE_NOTIFY_TRIGGER = f"""
CREATE OR REPLACE FUNCTION notify_document_change()
RETURNS TRIGGER AS $$
BEGIN
    PERFORM pg_notify('{NOTIFY_CHANNEL}', NEW.path);
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;
"""

# Documents table - one row per document, addressed by slash-separated path
CREATE_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS documents (
    path TEXT PRIMARY KEY,
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    data JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);
CREATE INDEX IF NOT EXISTS idx_documents_data ON documents USING GIN(data);

DROP TRIGGER IF EXISTS update_documents_updated_at ON documents;
CREATE TRIGGER update_documents_updated_at
    BEFORE UPDATE ON documents
    FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();

DROP TRIGGER IF EXISTS notify_documents_change ON documents;
CREATE TRIGGER notify_documents_change
    AFTER INSERT OR UPDATE ON documents
    FOR EACH ROW EXECUTE FUNCTION notify_document_change();
"""

# Complete schema initialization - executes in order
INIT_SCHEMA = f"""
{CREATE_UPDATED_AT_TRIGGER}
{CREATE_NOTIFY_TRIGGER}
{CREATE_DOCUMENTS_TABLE}
"""
