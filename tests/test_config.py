from __future__ import annotations

import os
import unittest
from unittest import mock

from image_tools.common import ImageToolError
from image_tools.config import ToolConfig, parse_build_num


class ToolConfigTests(unittest.TestCase):
    @mock.patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        config = ToolConfig.from_env()
        self.assertEqual(config, ToolConfig())
        self.assertEqual(config.image_ref("2.7.16"), "meshtastic-docker:v2.7.16-1")

    @mock.patch.dict(
        os.environ,
        {
            "IMAGE_NAME": "example/fw",
            "CONTAINER_RUNTIME": "podman",
            "BUILD_NUM": "4",
            "FIRMWARE_DIR": "vendor/firmware",
            "SHELL_COMMAND": "sh",
        },
        clear=True,
    )
    def test_reads_environment(self) -> None:
        config = ToolConfig.from_env()
        self.assertEqual(config.container_runtime, "podman")
        self.assertEqual(config.firmware_dir, "vendor/firmware")
        self.assertEqual(config.shell_command, "sh")
        self.assertEqual(config.image_ref("2.6.1"), "example/fw:v2.6.1-4")
        self.assertEqual(config.image_tag("2.6.1", 9), "v2.6.1-9")

    @mock.patch.dict(os.environ, {"CONTAINER_RUNTIME": "lxc"}, clear=True)
    def test_rejects_unknown_runtime(self) -> None:
        with self.assertRaises(ImageToolError):
            ToolConfig.from_env()

    def test_parse_build_num(self) -> None:
        self.assertEqual(parse_build_num("2"), 2)
        with self.assertRaises(ImageToolError):
            parse_build_num("two", source="BUILD_NUM")
        with self.assertRaises(ImageToolError):
            parse_build_num("0")


if __name__ == "__main__":
    unittest.main()
