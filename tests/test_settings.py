"""Tests for configuration loading and playback options."""

import unittest
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest.mock import patch

from vidflut.config.settings import ConfigRepo, PlaybackOptions, Target
from vidflut.modules.video.codec import Algorithm, CompressionLevel
from vidflut.modules.video.errors import ConfigError
from vidflut.modules.video.wire import WireProtocol


class TestPlaybackOptions(unittest.TestCase):
    def test_valid_options(self):
        PlaybackOptions(host="localhost:1337").validate()

    def test_host_required(self):
        with self.assertRaisesRegex(ConfigError, "host or target must be specified"):
            PlaybackOptions().validate()

    def test_invalid_host(self):
        with self.assertRaises(ConfigError):
            PlaybackOptions(host="localhost").validate()

    def test_non_positive_values(self):
        for field_name in ("compress_threads", "send_threads", "chunk_size", "batch_size"):
            with self.subTest(field=field_name):
                options = PlaybackOptions(host="localhost:1337", **{field_name: 0})
                with self.assertRaisesRegex(ConfigError, field_name):
                    options.validate()

    def test_negative_offset(self):
        with self.assertRaises(ConfigError):
            PlaybackOptions(host="localhost:1337", x_offset=-1).validate()

    def test_canvas_range(self):
        with self.assertRaises(ConfigError):
            PlaybackOptions(host="localhost:1337", canvas=256).validate()

    def test_threshold_rejects_numeric_level(self):
        options = PlaybackOptions(
            host="localhost:1337",
            algorithm=Algorithm.THRESHOLD,
            level=CompressionLevel.parse("50"),
        )
        with self.assertRaises(ConfigError):
            options.validate()

    def test_budget_accepts_numeric_level(self):
        PlaybackOptions(
            host="localhost:1337",
            algorithm=Algorithm.BUDGET,
            level=CompressionLevel.parse("50"),
        ).validate()

    def test_with_target(self):
        targets = {"wall": Target("wall.example.org:1234", WireProtocol.BIN_FLURRY, 3)}
        options = PlaybackOptions(target="wall").with_target(targets)

        self.assertEqual(options.host, "wall.example.org:1234")
        self.assertEqual(options.protocol, WireProtocol.BIN_FLURRY)
        self.assertEqual(options.canvas, 3)

    def test_without_target_is_unchanged(self):
        options = PlaybackOptions(host="localhost:1337")
        self.assertIs(options.with_target({}), options)

    def test_unknown_target(self):
        with self.assertRaisesRegex(ConfigError, "Target 'wall' not found"):
            PlaybackOptions(target="wall").with_target({})


class TestConfigRepo(unittest.TestCase):
    def setUp(self):
        self.temp_dir = TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.env = {
            "VIDFLUT_CACHE_DIR": str(self.root / "cache"),
            "VIDFLUT_TARGETS_PATH": str(self.root / "targets.yml"),
        }

    def tearDown(self):
        self.temp_dir.cleanup()

    def read(self, **env):
        with patch.dict("os.environ", {**self.env, **env}), patch(
            "vidflut.config.settings.load_dotenv"
        ):
            return ConfigRepo().read()

    def test_defaults(self):
        config = self.read()

        self.assertEqual(config.compress_threads, 8)
        self.assertEqual(config.send_threads, 4)
        self.assertEqual(config.cache_dir, self.root / "cache")
        self.assertEqual(config.logging_config["version"], 1)
        self.assertEqual(config.targets, {})

    def test_thread_counts_from_environment(self):
        config = self.read(VIDFLUT_COMPRESS_THREADS="2", VIDFLUT_SEND_THREADS="16")

        self.assertEqual(config.compress_threads, 2)
        self.assertEqual(config.send_threads, 16)

    def test_zero_threads_rejected(self):
        with self.assertRaisesRegex(ConfigError, "VIDFLUT_COMPRESS_THREADS"):
            self.read(VIDFLUT_COMPRESS_THREADS="0")

    def test_non_integer_threads_rejected(self):
        with self.assertRaisesRegex(ConfigError, "must be an integer"):
            self.read(VIDFLUT_SEND_THREADS="many")

    def test_targets_file(self):
        (self.root / "targets.yml").write_text(
            "local:\n"
            "  host: localhost:1337\n"
            "wall:\n"
            "  host: wall.example.org:1234\n"
            "  protocol: bin-flurry\n"
            "  canvas: 7\n"
        )
        config = self.read()

        self.assertEqual(config.targets["local"], Target("localhost:1337"))
        self.assertEqual(
            config.targets["wall"],
            Target("wall.example.org:1234", WireProtocol.BIN_FLURRY, 7),
        )

    def test_target_without_host(self):
        (self.root / "targets.yml").write_text("local:\n  canvas: 1\n")
        with self.assertRaisesRegex(ConfigError, "must define a host"):
            self.read()

    def test_target_with_unknown_protocol(self):
        (self.root / "targets.yml").write_text("local:\n  host: a:1\n  protocol: smoke\n")
        with self.assertRaises(ConfigError):
            self.read()

    def test_custom_logging_config(self):
        path = self.root / "logging.yml"
        path.write_text("version: 1\nroot:\n  level: DEBUG\n")
        config = self.read(VIDFLUT_LOGGING_CONFIG_PATH=str(path))

        self.assertEqual(config.logging_config["root"]["level"], "DEBUG")

    def test_missing_logging_config(self):
        with self.assertRaises(FileNotFoundError):
            self.read(VIDFLUT_LOGGING_CONFIG_PATH=str(self.root / "missing.yml"))
