"""Test-environment orchestration: declared guest services and networks on a container host."""
