"""
Concrete order flows and the registry wiring used by the API and scripts.
"""
from orderflow.catalog import ProductCatalogue
from orderflow.config import OrderflowConfig
from orderflow.engine.nodes import FlowRegistry

from .checkout import FLOW_NAME as CHECKOUT_FLOW, build_checkout_flow


def build_registry(cfg: OrderflowConfig, catalogue: ProductCatalogue = None) -> FlowRegistry:
    catalogue = catalogue or ProductCatalogue.from_config(cfg)
    return FlowRegistry([build_checkout_flow(catalogue, cfg.pricing)])


__all__ = ['CHECKOUT_FLOW', 'build_checkout_flow', 'build_registry']
