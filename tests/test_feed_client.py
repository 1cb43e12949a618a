"""Tests for FeedClient and the feed parsers."""

import unittest
from unittest.mock import MagicMock, patch
from datetime import datetime

import requests

from fixtures import dia, feed_train, traffic_info

from railtrack.config import Settings
from railtrack.errors import MalformedScheduleError, NotFoundError, UpstreamUnavailableError
from railtrack.feed_client import (
    FeedClient,
    format_timestamp,
    parse_delay,
    parse_feed_timestamp,
    parse_schedule,
    parse_snapshot,
    parse_train,
)
from railtrack.models import Direction, StopFlag


def json_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error", response=response)
    return response


class TestParsers(unittest.TestCase):
    """Test conversion of feed documents into models."""

    def test_parse_train(self):
        train = parse_train(feed_train("0715", delay="05", direction="0", position="2", cars="8", info="遅れ"))
        self.assertEqual(train.number, "0715")
        self.assertEqual(train.type_code, "1")
        self.assertEqual(train.direction, Direction.UP)
        self.assertEqual(train.delay_minutes, 5)
        self.assertEqual(train.destination_code, "054")
        self.assertEqual(train.car_count, "8")
        self.assertEqual(train.free_text_info, "遅れ")
        self.assertFalse(train.is_in_station)

    def test_parse_train_defaults(self):
        train = parse_train(feed_train("0715", cars="0"))
        self.assertEqual(train.direction, Direction.DOWN)
        self.assertIsNone(train.car_count)
        self.assertIsNone(train.free_text_info)
        self.assertTrue(train.is_in_station)

    def test_parse_delay(self):
        self.assertEqual(parse_delay("00"), 0)
        self.assertEqual(parse_delay("12"), 12)
        self.assertEqual(parse_delay(None), 0)
        self.assertEqual(parse_delay("--"), 0)
        self.assertEqual(parse_delay("-3"), 0)

    def test_parse_feed_timestamp_pads(self):
        payload = traffic_info()
        self.assertEqual(parse_feed_timestamp(payload), datetime(2025, 4, 24, 10, 45, 0))
        self.assertEqual(format_timestamp(parse_feed_timestamp(payload)), "2025-04-24 10:45:00")

    def test_missing_timestamp(self):
        self.assertIsNone(parse_feed_timestamp({}))
        self.assertEqual(format_timestamp(None), "Unknown")

    def test_parse_snapshot(self):
        snapshot = parse_snapshot(
            traffic_info(
                stationed={"E001": [feed_train("0715")]},
                in_transit={"U001": [feed_train("0801"), feed_train("0803")]},
            )
        )
        self.assertTrue(snapshot.has_positions)
        self.assertEqual([o.location_id for o in snapshot.stationed], ["E001"])
        self.assertEqual([t.number for t in snapshot.all_trains()], ["0715", "0801", "0803"])

    def test_parse_snapshot_skips_broken_entries(self):
        payload = traffic_info(stationed={"E001": [feed_train("0715")]})
        payload["TS"].append({"id": "E002", "ps": None})
        snapshot = parse_snapshot(payload)
        self.assertEqual([o.location_id for o in snapshot.stationed], ["E001"])

    def test_parse_snapshot_without_positions(self):
        snapshot = parse_snapshot({"up": []})
        self.assertFalse(snapshot.has_positions)
        self.assertEqual(snapshot.all_trains(), [])

    def test_parse_schedule(self):
        schedule = parse_schedule("0715", dia(("01", "新宿", "11:00", "1"), ("02", "笹塚", "", "0")))
        self.assertEqual(schedule.train_id, "0715")
        self.assertEqual(schedule.stops[0].scheduled_time, "11:00")
        self.assertEqual(schedule.stops[0].stop_flag, StopFlag.STOP)
        self.assertIsNone(schedule.stops[1].scheduled_time)
        self.assertEqual(schedule.stops[1].stop_flag, StopFlag.PASS)

    def test_parse_schedule_malformed(self):
        for payload in [None, {}, {"dy": None}, {"dy": "x"}, []]:
            with self.assertRaises(MalformedScheduleError):
                parse_schedule("0715", payload)

    def test_parse_schedule_rejects_non_object_stop(self):
        with self.assertRaises(MalformedScheduleError):
            parse_schedule("0715", {"dy": [None]})

    def test_parse_schedule_rejects_non_string_time(self):
        with self.assertRaises(MalformedScheduleError):
            parse_schedule("0715", {"dy": [{"st": "01", "sn": "新宿", "ht": 1100, "pa": "1"}]})

    def test_parse_train_coerces_numbers(self):
        raw = feed_train("0715")
        raw["tr"] = 715
        raw["sr"] = 8
        train = parse_train(raw)
        self.assertEqual(train.number, "715")
        self.assertEqual(train.car_count, "8")

    def test_parse_snapshot_skips_non_object_entries(self):
        payload = traffic_info(stationed={"E001": [feed_train("0715")]})
        payload["TS"].insert(0, "E002")
        payload["TB"] = {"id": "U001"}
        snapshot = parse_snapshot(payload)
        self.assertEqual([o.location_id for o in snapshot.stationed], ["E001"])
        self.assertEqual(snapshot.in_transit, [])

    def test_malformed_is_not_found(self):
        with self.assertRaises(NotFoundError):
            parse_schedule("0715", {})


class TestFeedClient(unittest.TestCase):
    """Test HTTP fetching, caching and error mapping."""

    def setUp(self):
        self.session = MagicMock()
        self.client = FeedClient(Settings(base_url="http://test"), session=self.session)

    def test_get_live_snapshot(self):
        self.session.get.return_value = json_response(traffic_info(stationed={"E001": [feed_train("0715")]}))

        snapshot = self.client.get_live_snapshot()

        self.assertEqual(snapshot.stationed[0].trains[0].number, "0715")
        url = self.session.get.call_args.args[0]
        self.assertEqual(url, "http://test/data/traffic_info.json")
        self.assertIn("ts", self.session.get.call_args.kwargs["params"])

    @patch("railtrack.feed_client.time.time")
    def test_snapshot_is_cached(self, mock_time):
        mock_time.return_value = 1000.0
        self.session.get.return_value = json_response(traffic_info())

        first = self.client.get_live_snapshot()
        mock_time.return_value = 1029.0
        second = self.client.get_live_snapshot()

        self.assertIs(first, second)
        self.assertEqual(self.session.get.call_count, 1)

        mock_time.return_value = 1031.0
        self.client.get_live_snapshot()
        self.assertEqual(self.session.get.call_count, 2)

    def test_clear_cache(self):
        self.session.get.return_value = json_response(traffic_info())
        self.client.get_live_snapshot()
        self.client.clear_cache()
        self.client.get_live_snapshot()
        self.assertEqual(self.session.get.call_count, 2)

    def test_snapshot_transport_failure(self):
        self.session.get.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_live_snapshot()

    def test_snapshot_non_json(self):
        response = json_response(None)
        response.json.side_effect = ValueError("Expecting value")
        self.session.get.return_value = response
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_live_snapshot()

    def test_snapshot_null_body(self):
        self.session.get.return_value = json_response(None)
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_live_snapshot()

    def test_snapshot_list_body(self):
        self.session.get.return_value = json_response([])
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_live_snapshot()

    def test_get_train_schedule(self):
        self.session.get.return_value = json_response(dia(("01", "新宿", "11:00", "1")))

        schedule = self.client.get_train_schedule("0715")

        self.assertEqual(schedule.stops[0].station_name, "新宿")
        self.assertEqual(self.session.get.call_args.args[0], "http://test/dia/0715.json")

    def test_schedule_not_found(self):
        self.session.get.return_value = json_response({}, status_code=404)
        with self.assertRaises(NotFoundError):
            self.client.get_train_schedule("0000")

    def test_schedule_server_error(self):
        self.session.get.return_value = json_response({}, status_code=503)
        with self.assertRaises(UpstreamUnavailableError):
            self.client.get_train_schedule("0715")

    def test_schedule_malformed(self):
        self.session.get.return_value = json_response({"error": "no data"})
        with self.assertRaises(MalformedScheduleError):
            self.client.get_train_schedule("0715")

    def test_close(self):
        self.client.close()
        self.session.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
