"""Dependency graph package for resource build ordering."""

from .dependency_graph import (
	CircularDependencyError,
	DependencyGraph,
	DependencyNode,
	DuplicateNodeNameError,
	graph_build,
)

__all__ = [
	"CircularDependencyError",
	"DependencyGraph",
	"DependencyNode",
	"DuplicateNodeNameError",
	"graph_build",
]
