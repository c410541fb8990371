"""
Script: image_tools package
What: Holds the Python helpers that build and open firmware toolchain images.
Doing: Groups the `build` and `shell` commands with shared version and runtime helpers.
Why: Keeps version selection and image build logic readable and testable.
Goal: Provide one maintainable home for firmware image build and shell tooling.
"""
