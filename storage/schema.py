"""DynamoDB table layouts for persisted sync rows."""
from typing import Dict

# logical name -> key attributes, attribute types and secondary indexes
TABLE_SCHEMAS: Dict[str, dict] = {
    'series': {
        'keys': [('id', 'HASH')],
        'attributes': {'id': 'N'},
    },
    'events': {
        'keys': [('id', 'HASH')],
        'attributes': {'id': 'N', 'date': 'S', 'start_time': 'S'},
        'indexes': {'date-index': [('date', 'HASH'), ('start_time', 'RANGE')]},
    },
    'event-hybrid': {
        'keys': [('event', 'HASH')],
        'attributes': {'event': 'N'},
    },
    'event-av-config': {
        'keys': [('event', 'HASH')],
        'attributes': {'event': 'N'},
    },
    'event-recording': {
        'keys': [('event', 'HASH')],
        'attributes': {'event': 'N'},
    },
    'event-other-hardware': {
        'keys': [('event', 'HASH'), ('other_hardware_dict', 'RANGE')],
        'attributes': {'event': 'N', 'other_hardware_dict': 'S'},
    },
    'actions': {
        'keys': [('id', 'HASH')],
        'attributes': {'id': 'N', 'event': 'N'},
        'indexes': {'event-index': [('event', 'HASH')]},
    },
    'qc-items': {
        'keys': [('action', 'HASH'), ('qc_item_dict', 'RANGE')],
        'attributes': {'action': 'N', 'qc_item_dict': 'N'},
    },
    'resources-dict': {
        'keys': [('id', 'HASH')],
        'attributes': {'id': 'S'},
    },
    'resource-events': {
        'keys': [('event_id', 'HASH'), ('resource_id', 'RANGE')],
        'attributes': {'event_id': 'N', 'resource_id': 'S'},
    },
    'series-faculty': {
        'keys': [('series', 'HASH'), ('faculty', 'RANGE')],
        'attributes': {'series': 'N', 'faculty': 'N'},
    },
    'venues': {
        'keys': [('id', 'HASH')],
        'attributes': {'id': 'N'},
    },
    'faculty': {
        'keys': [('id', 'HASH')],
        'attributes': {'id': 'N'},
    },
}


def table_name(prefix: str, name: str) -> str:
    return f"{prefix}-{name}"


def create_tables(dynamodb, prefix: str) -> dict:
    """
    Create every table for ``prefix`` with on-demand billing.

    Used for local development and tests; deployed tables are provisioned
    by infrastructure code.

    Args:
        dynamodb: boto3 DynamoDB service resource
        prefix: Table name prefix

    Returns:
        Mapping of logical name to Table resource
    """
    tables = {}
    for name, schema in TABLE_SCHEMAS.items():
        params = {
            'TableName': table_name(prefix, name),
            'KeySchema': [
                {'AttributeName': attr, 'KeyType': key_type}
                for attr, key_type in schema['keys']
            ],
            'AttributeDefinitions': [
                {'AttributeName': attr, 'AttributeType': attr_type}
                for attr, attr_type in schema['attributes'].items()
            ],
            'BillingMode': 'PAY_PER_REQUEST',
        }
        indexes = schema.get('indexes')
        if indexes:
            params['GlobalSecondaryIndexes'] = [
                {
                    'IndexName': index_name,
                    'KeySchema': [
                        {'AttributeName': attr, 'KeyType': key_type}
                        for attr, key_type in index_keys
                    ],
                    'Projection': {'ProjectionType': 'ALL'},
                }
                for index_name, index_keys in indexes.items()
            ]
        tables[name] = dynamodb.create_table(**params)
    return tables
