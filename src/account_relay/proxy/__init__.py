"""Passthrough proxy: dispatcher, header policy and runtime target."""
