from .mesh import Mesh2D, LEFT, RIGHT, BOTTOM, TOP, SIDE_NAMES
from .quadrature import ProductQuadrature
from .boundary import BoundaryMesh, VacuumCondition, ReflectCondition, ResponseCondition
from .sources import State, ScatterSource, FissionSource, ExternalSource
from .sweeper import Sweeper2D
from .diffusion import DiffusionOperator
from .context import SolveContext, RunBudget
