import json
import tempfile
import unittest
from pathlib import Path

import support  # noqa: F401

from orchestrator.core.errors import ConfigurationError
from orchestrator.repositories.connections_config import load_connections, parse_connections


class ParseConnectionsTests(unittest.TestCase):
    def test_defaults_fill_missing_schema_and_column(self):
        connections = parse_connections(
            [{'connectionId': 'c1', 'monitoredTables': [{'tableName': 'orders'}]}],
            default_schema='sales',
            default_column='modified_at',
        )
        table = connections[0].monitored_tables[0]
        self.assertEqual(table.schema_name, 'sales')
        self.assertEqual(table.updated_at_column, 'modified_at')
        self.assertEqual(table.qualified_name, 'sales.orders')

    def test_description_defaults_to_connection_id(self):
        connections = parse_connections([{'connectionId': 'c1', 'monitoredTables': []}])
        self.assertEqual(connections[0].description, 'c1')
        self.assertEqual(connections[0].monitored_tables, ())

    def test_keeps_configuration_order(self):
        entries = [{'connectionId': cid, 'monitoredTables': []} for cid in ('b', 'a', 'c')]
        self.assertEqual([c.connection_id for c in parse_connections(entries)], ['b', 'a', 'c'])

    def test_invalid_entries_are_skipped_with_warning(self):
        entries = [
            {'description': 'sin id', 'monitoredTables': []},
            {'connectionId': 'c2'},
            {'connectionId': 'c3', 'monitoredTables': [{'schemaName': 'public'}]},
            'not-an-object',
            {'connectionId': 'ok', 'monitoredTables': [{'tableName': 't'}]},
        ]
        with self.assertLogs('orchestrator.repositories.connections_config', level='WARNING') as logs:
            connections = parse_connections(entries)
        self.assertEqual([c.connection_id for c in connections], ['ok'])
        self.assertEqual(len(logs.records), 4)

    def test_duplicate_connection_ids_keep_first(self):
        entries = [
            {'connectionId': 'c1', 'description': 'first', 'monitoredTables': []},
            {'connectionId': 'c1', 'description': 'second', 'monitoredTables': []},
        ]
        connections = parse_connections(entries)
        self.assertEqual(len(connections), 1)
        self.assertEqual(connections[0].description, 'first')

    def test_non_list_document_is_configuration_error(self):
        with self.assertRaises(ConfigurationError):
            parse_connections({'connectionId': 'c1'})


class LoadConnectionsTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / 'monitored_tables_config.json'

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_is_empty_configuration(self):
        with self.assertLogs('orchestrator.repositories.connections_config', level='WARNING'):
            self.assertEqual(load_connections(self.path), [])

    def test_malformed_file_is_fatal(self):
        self.path.write_text('[{"connectionId": ', encoding='utf-8')
        with self.assertRaises(ConfigurationError):
            load_connections(self.path)

    def test_loads_file(self):
        self.path.write_text(
            json.dumps([{'connectionId': 'c1', 'description': 'CRM', 'monitoredTables': [{'tableName': 'customers'}]}]),
            encoding='utf-8',
        )
        connections = load_connections(self.path)
        self.assertEqual(connections[0].description, 'CRM')
        self.assertEqual(connections[0].monitored_tables[0].qualified_name, 'public.customers')
        self.assertEqual(connections[0].monitored_tables[0].updated_at_column, 'updated_at')


if __name__ == '__main__':
    unittest.main()
