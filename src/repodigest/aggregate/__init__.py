"""Aggregation of activity records into work units."""
from .build import AggregationResult, DroppedRecord, WorkUnitBuilder, build_work_units, derive_unit_key

__all__ = ['AggregationResult', 'DroppedRecord', 'WorkUnitBuilder', 'build_work_units', 'derive_unit_key']
