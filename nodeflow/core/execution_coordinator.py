"""Execution Coordinator running workflow plans node by node."""

import copy
import logging
import threading
from collections import defaultdict
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from ..models.core import (
    ExecutionEvent,
    ExecutionPlan,
    ExecutionResult,
    ExecutionStatusEnum,
    Node,
    PropertyValue,
    Workflow,
)
from .exceptions import GraphValidationError, NodeExecutionError, UnregisteredNodeTypeError
from .executor_registry import ExecutorRegistry
from .graph_builder import GraphBuilder
from .logging import get_logger, log_with_context

logger = get_logger(__name__)

EventListener = Callable[[ExecutionEvent], None]

_property_value = TypeAdapter(PropertyValue)


class _ExecutionRecorder:
    """Collects outputs and errors of one run; safe to share between node workers."""

    def __init__(self, result: ExecutionResult, plan_index: Dict[str, int]):
        self.result = result
        self._plan_index = plan_index
        self._errors: List[Tuple[int, str]] = []
        self._lock = threading.Lock()

    def collect_inputs(self, predecessors: List[str]) -> Dict[str, PropertyValue]:
        with self._lock:
            return {
                node_id: copy.deepcopy(self.result.results[node_id])
                for node_id in predecessors
                if node_id in self.result.results
            }

    def record_output(self, node_id: str, output: PropertyValue) -> None:
        with self._lock:
            self.result.results[node_id] = output

    def record_error(self, node_id: str, message: str) -> None:
        with self._lock:
            self._errors.append((self._plan_index[node_id], message))

    def finish(self) -> ExecutionResult:
        """Order errors by plan position and classify the terminal status."""
        with self._lock:
            self.result.errors = [message for _, message in sorted(self._errors, key=lambda e: e[0])]
            self.result.end_time = datetime.utcnow()
            if self.result.errors:
                self.result.status = ExecutionStatusEnum.FAILED
            else:
                self.result.status = ExecutionStatusEnum.COMPLETED
            return self.result


class ExecutionCoordinator:
    """Owns execution attempts end to end: plan, dispatch, collect, classify."""

    def __init__(
        self,
        registry: ExecutorRegistry,
        graph_builder: Optional[GraphBuilder] = None,
        max_parallel_nodes: int = 1,
        event_listener: Optional[EventListener] = None
    ):
        """Initialize the coordinator.

        Args:
            registry: Registry used to resolve node executors
            graph_builder: Builder for execution plans (a new one if omitted)
            max_parallel_nodes: Worker threads for independent branches; 1 runs
                the plan strictly sequentially
            event_listener: Optional callback receiving progress events
        """
        if max_parallel_nodes < 1:
            raise ValueError("max_parallel_nodes must be at least 1")

        self.registry = registry
        self.graph_builder = graph_builder or GraphBuilder()
        self.max_parallel_nodes = max_parallel_nodes
        self.event_listener = event_listener

    def execute(self, workflow: Workflow) -> ExecutionResult:
        """
        Execute a workflow once and return its terminal result.

        A structurally invalid workflow (cycle or dangling connection) is never
        partially executed. Otherwise every planned node is attempted: a node
        without an executor or whose executor fails contributes one error and
        the run continues.

        Args:
            workflow: Read-only workflow snapshot

        Returns:
            ExecutionResult: ``completed`` if no errors were reported, else ``failed``
        """
        result = ExecutionResult(
            workflow_id=workflow.id,
            status=ExecutionStatusEnum.RUNNING,
            start_time=datetime.utcnow()
        )

        log_with_context(
            logger, logging.INFO,
            f"Starting execution of workflow {workflow.id}",
            workflow_id=workflow.id,
            node_count=len(workflow.nodes)
        )

        try:
            plan = self.graph_builder.build_plan(workflow)
        except GraphValidationError as e:
            logger.warning(f"Workflow {workflow.id} rejected before execution: {e.message}")
            result.errors = [e.message]
            result.end_time = datetime.utcnow()
            result.status = ExecutionStatusEnum.FAILED
            self._emit_execution_update(result)
            return result

        plan_index = {node_id: index for index, node_id in enumerate(plan.order)}
        recorder = _ExecutionRecorder(result, plan_index)
        nodes = {node.id: node for node in workflow.nodes}

        if self.max_parallel_nodes > 1:
            self._run_parallel(plan, nodes, recorder)
        else:
            for node_id in plan.order:
                self._run_node(workflow.id, nodes[node_id], plan, recorder)

        result = recorder.finish()

        log_with_context(
            logger, logging.INFO,
            f"Workflow {workflow.id} finished with status {result.status.value}",
            workflow_id=workflow.id,
            status=result.status.value,
            completed_nodes=len(result.results),
            error_count=len(result.errors)
        )
        self._emit_execution_update(result)
        return result

    def _run_parallel(self, plan: ExecutionPlan, nodes: Dict[str, Node], recorder: _ExecutionRecorder) -> None:
        """Run independent branches concurrently; a node starts once all its predecessors finished."""
        remaining = {node_id: len(plan.predecessors.get(node_id, [])) for node_id in plan.order}
        dependents: Dict[str, List[str]] = defaultdict(list)
        for node_id in plan.order:
            for predecessor in plan.predecessors.get(node_id, []):
                dependents[predecessor].append(node_id)

        position = {node_id: index for index, node_id in enumerate(plan.order)}
        workflow_id = plan.workflow_id
        with ThreadPoolExecutor(
            max_workers=self.max_parallel_nodes,
            thread_name_prefix="nodeflow-node"
        ) as pool:
            pending = {}

            def submit(node_ids: List[str]) -> None:
                for node_id in node_ids:
                    future = pool.submit(self._run_node, workflow_id, nodes[node_id], plan, recorder)
                    pending[future] = node_id

            submit([node_id for node_id in plan.order if remaining[node_id] == 0])

            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                ready: List[str] = []
                for future in done:
                    node_id = pending.pop(future)
                    future.result()
                    for dependent in dependents[node_id]:
                        remaining[dependent] -= 1
                        if remaining[dependent] == 0:
                            ready.append(dependent)
                submit(sorted(ready, key=position.__getitem__))

    def _run_node(self, workflow_id: str, node: Node, plan: ExecutionPlan, recorder: _ExecutionRecorder) -> None:
        """Dispatch one node and record its output or error."""
        inputs = recorder.collect_inputs(plan.predecessors.get(node.id, []))

        try:
            executor = self.registry.get_executor(node.type)
        except UnregisteredNodeTypeError as e:
            message = f"{e.message} (node {node.id})"
            logger.warning(f"Skipping node {node.id}: {e.message}")
            recorder.record_error(node.id, message)
            self._emit_node_update(workflow_id, node, "skipped", error=message)
            return

        self._emit_node_update(workflow_id, node, "started")
        logger.debug(f"Executing node {node.id} ({node.type}) with inputs from {sorted(inputs)}")

        try:
            output = executor.execute(copy.deepcopy(node.properties), inputs)
            output = _property_value.validate_python(output)
        except NodeExecutionError as e:
            cause = e.message
        except ValidationError:
            cause = "executor returned a value that is not a property value"
        except Exception as e:
            logger.error(f"Executor for node {node.id} raised unexpectedly", exc_info=True)
            cause = str(e) or type(e).__name__
        else:
            recorder.record_output(node.id, output)
            self._emit_node_update(workflow_id, node, "completed", output=output)
            logger.debug(f"Node {node.id} completed")
            return

        message = f"node {node.id} error: {cause}"
        log_with_context(
            logger, logging.WARNING,
            f"Node {node.id} failed: {cause}",
            workflow_id=workflow_id,
            node_id=node.id,
            node_type=node.type
        )
        recorder.record_error(node.id, message)
        self._emit_node_update(workflow_id, node, "failed", error=message)

    def _emit_node_update(self, workflow_id: str, node: Node, status: str, **data) -> None:
        self._emit(ExecutionEvent(
            event_type="node_update",
            workflow_id=workflow_id,
            node_id=node.id,
            data={"status": status, "node_type": node.type, **data}
        ))

    def _emit_execution_update(self, result: ExecutionResult) -> None:
        self._emit(ExecutionEvent(
            event_type="execution_update",
            workflow_id=result.workflow_id,
            data=result.model_dump(mode="json")
        ))

    def _emit(self, event: ExecutionEvent) -> None:
        if self.event_listener is None:
            return
        try:
            self.event_listener(event)
        except Exception as e:
            logger.error(f"Execution event listener failed for {event.event_type}: {str(e)}")
