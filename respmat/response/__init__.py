from .indexing import ModeIndex
from .expander import ResponseExpander, Expansion
from .assembler import (SYMMETRY_TABLE, ResponseMatrixAssembler, build_response_matrix,
                        replicate, top_k_eigenvalues)
from .connect import build_connectivity
from .pipeline import generate_responses
