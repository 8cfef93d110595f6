"""Schema v1 - Document store.

Every document lives in a single table keyed by its collection path and id:
- listings/{id}                      -> collection 'listings'
- users/{uid}/cart/{listingId}       -> collection 'users/{uid}/cart'
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'documents',
            'columns': [
                {'name': 'collection', 'type': 'TEXT', 'nullable': False},
                {'name': 'doc_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'data', 'type': 'JSONB', 'nullable': False, 'default': "'{}'::JSONB"},
                {'name': 'created_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMP', 'nullable': False, 'default': 'now()'}
            ],
            'primary_key': ['collection', 'doc_id'],
            'indexes': [
                {'name': 'idx_documents_collection', 'columns': ['collection']},
                {'name': 'idx_documents_data', 'columns': ['data'], 'inverted': True}
            ]
        }
    ],
    'migrations': []
}
