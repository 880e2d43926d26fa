"""
Module system: compilation of module graphs and runtime module handles.
"""

from .compiler import CompiledModule, ModuleCompiler
from .ref import ModuleRef

__all__ = [
    "CompiledModule",
    "ModuleCompiler",
    "ModuleRef",
]
