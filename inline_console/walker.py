"""TreeWalker — single pre-order pass collecting logging call sites.

The walker keeps a context stack (global / function / class method /
callback), feeds every logging call's arguments to the ExpressionEvaluator,
and populates the Environment from top-level declarations as it goes.
"""

from __future__ import annotations

import logging
from typing import Callable

from . import constants
from .analysis_types import AnalysisResult, CallContext, LogCallSite, SourceLine
from .environment import Environment
from .evaluator import ExpressionEvaluator
from .operators import Operators
from .values import (
    UNDEFINED,
    Composite,
    EvaluatedValue,
    Literal,
    Opaque,
    numeric_value,
)

logger = logging.getLogger(__name__)


class TreeWalker:
    """Walks a tree-sitter JavaScript/TypeScript tree once, top to bottom."""

    FUNCTION_DECLARATION_TYPES: frozenset[str] = frozenset(
        {"function_declaration", "generator_function_declaration"}
    )
    CLASS_DECLARATION_TYPES: frozenset[str] = frozenset(
        {"class_declaration", "abstract_class_declaration"}
    )
    CALLBACK_TYPES: frozenset[str] = frozenset(
        {"arrow_function", "function_expression", "function", "generator_function"}
    )
    BRANCHING_TYPES: frozenset[str] = frozenset(
        {
            "if_statement",
            "switch_statement",
            "for_statement",
            "for_in_statement",
            "while_statement",
            "do_statement",
        }
    )

    def __init__(self, env: Environment | None = None):
        self._env = env if env is not None else Environment()
        self._source: bytes = b""
        self._lines: list[SourceLine] = []
        self._evaluator = ExpressionEvaluator(self._env, b"")
        self._context_stack: list[CallContext] = [CallContext.GLOBAL]
        self._branch_depth: int = 0
        self._sites: list[LogCallSite] = []
        self._seen_lines: set[int] = set()
        self._simple: bool = True
        self._VISIT_DISPATCH: dict[str, Callable] = {
            "lexical_declaration": self._visit_var_declaration,
            "variable_declaration": self._visit_var_declaration,
            "assignment_expression": self._visit_assignment,
            "augmented_assignment_expression": self._visit_augmented_assignment,
            "update_expression": self._visit_update,
            "call_expression": self._visit_call,
            "method_definition": self._visit_method,
            "class_static_block": self._visit_class_member,
            "field_definition": self._visit_class_member,
            "public_field_definition": self._visit_class_member,
        }
        for decl_type in self.FUNCTION_DECLARATION_TYPES:
            self._VISIT_DISPATCH[decl_type] = self._visit_function_declaration
        for callback_type in self.CALLBACK_TYPES:
            self._VISIT_DISPATCH[callback_type] = self._visit_callback
        for branch_type in self.BRANCHING_TYPES:
            self._VISIT_DISPATCH[branch_type] = self._visit_branching

    @property
    def environment(self) -> Environment:
        return self._env

    @property
    def context(self) -> CallContext:
        return self._context_stack[-1]

    # ── entry point ──────────────────────────────────────────────

    def walk(self, tree, source: bytes) -> AnalysisResult:
        self._source = source
        self._lines = [
            SourceLine(number=i, text=text)
            for i, text in enumerate(source.decode("utf-8").split("\n"), start=1)
        ]
        self._evaluator = ExpressionEvaluator(self._env, source)
        self._context_stack = [CallContext.GLOBAL]
        self._branch_depth = 0
        self._sites = []
        self._seen_lines = set()
        self._simple = True

        root = tree.root_node
        self._collect_declarations(root)
        self._visit(root)
        logger.info(
            "Walk complete: %d logging calls, %d variables, %d functions, %d classes",
            len(self._sites),
            len(self._env.variables),
            len(self._env.functions),
            len(self._env.classes),
        )
        return AnalysisResult(
            call_sites=self._sites,
            simple_enough_for_direct_execution=self._simple,
            source_lines=self._lines,
        )

    # ── helpers ──────────────────────────────────────────────────

    def _node_text(self, node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    def _push(self, context: CallContext):
        self._context_stack.append(context)

    def _pop(self):
        self._context_stack.pop()

    def _visit(self, node):
        handler = self._VISIT_DISPATCH.get(node.type)
        if handler:
            handler(node)
            return
        self._visit_children(node)

    def _visit_children(self, node):
        for child in node.named_children:
            self._visit(child)

    def _declares_parameters(self, node) -> bool:
        params = node.child_by_field_name("parameters")
        if params is not None:
            return any(c.is_named and c.type != "comment" for c in params.children)
        return node.child_by_field_name("parameter") is not None

    def _visit_body(self, node, context: CallContext):
        if self._declares_parameters(node):
            self._simple = False
        body = node.child_by_field_name("body")
        if body is None:
            return
        self._push(context)
        self._visit(body)
        self._pop()

    def _in_linear_top_level(self) -> bool:
        return self.context == CallContext.GLOBAL and self._branch_depth == 0

    # ── declarations (collected before the call visitor runs) ────

    def _collect_declarations(self, root):
        """Register every function and class declaration, however deeply nested."""
        stack = [root]
        while stack:
            node = stack.pop()
            if node.type in self.FUNCTION_DECLARATION_TYPES:
                name_node = node.child_by_field_name("name")
                params_node = node.child_by_field_name("parameters")
                if name_node is not None:
                    name = self._node_text(name_node)
                    params = (
                        " ".join(self._node_text(params_node).split())
                        if params_node is not None
                        else "()"
                    )
                    self._env.declare_function(name, f"{name}{params}")
            elif node.type in self.CLASS_DECLARATION_TYPES:
                name_node = node.child_by_field_name("name")
                if name_node is not None:
                    self._env.declare_class(self._node_text(name_node))
            stack.extend(reversed(node.named_children))

    # ── context-changing nodes ───────────────────────────────────

    def _visit_function_declaration(self, node):
        self._visit_body(node, CallContext.FUNCTION)

    def _visit_method(self, node):
        parent = node.parent
        in_class = parent is not None and parent.type == "class_body"
        self._visit_body(node, CallContext.CLASS if in_class else CallContext.CALLBACK)

    def _visit_class_member(self, node):
        """Static blocks and field initializers run as part of the class."""
        self._push(CallContext.CLASS)
        self._visit_children(node)
        self._pop()

    def _visit_callback(self, node):
        self._visit_body(node, CallContext.CALLBACK)

    def _visit_branching(self, node):
        self._branch_depth += 1
        self._visit_children(node)
        self._branch_depth -= 1

    # ── environment population ───────────────────────────────────

    def _bind(self, name: str, value: EvaluatedValue, value_node=None):
        self._env.bind(name, value)
        if (
            value_node is not None
            and value_node.type == "object"
            and isinstance(value, Composite)
            and value.fields is not None
        ):
            self._env.record_shape(name, dict(value.fields))

    def _visit_var_declaration(self, node):
        for child in node.named_children:
            if child.type != "variable_declarator":
                continue
            name_node = child.child_by_field_name("name")
            value_node = child.child_by_field_name("value")
            if (
                self.context == CallContext.GLOBAL
                and name_node is not None
                and name_node.type == "identifier"
            ):
                name = self._node_text(name_node)
                if not self._in_linear_top_level():
                    self._bind(name, Opaque())
                elif value_node is not None:
                    self._bind(name, self._evaluator.evaluate(value_node), value_node)
                else:
                    self._bind(name, Literal(UNDEFINED))
            if value_node is not None:
                self._visit(value_node)

    def _visit_assignment(self, node):
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if self.context == CallContext.GLOBAL and left.type == "identifier":
            name = self._node_text(left)
            if self._in_linear_top_level():
                self._bind(name, self._evaluator.evaluate(right), right)
            else:
                self._bind(name, Opaque())
        self._visit(right)

    def _visit_augmented_assignment(self, node):
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        op = self._node_text(node.child_by_field_name("operator")).rstrip("=")
        if self.context == CallContext.GLOBAL and left.type == "identifier":
            name = self._node_text(left)
            if self._in_linear_top_level() and op in Operators.ARITHMETIC_OPERATORS:
                current = self._evaluator.lookup_identifier(name)
                rhs = self._evaluator.evaluate(right)
                self._bind(name, self._evaluator.apply_binary(op, current, rhs))
            else:
                self._bind(name, Opaque())
        self._visit(right)

    def _visit_update(self, node):
        arg = node.child_by_field_name("argument")
        if (
            self.context != CallContext.GLOBAL
            or arg is None
            or arg.type != "identifier"
        ):
            return
        name = self._node_text(arg)
        current = numeric_value(self._evaluator.lookup_identifier(name))
        if self._in_linear_top_level() and current is not None:
            step = 1 if "++" in self._node_text(node) else -1
            self._bind(name, Literal(Operators.eval_binop("+", current, step)))
        elif name in self._env.variables:
            self._bind(name, Opaque())

    # ── logging calls ────────────────────────────────────────────

    def _is_log_call(self, func_node) -> bool:
        if func_node is None or func_node.type != "member_expression":
            return False
        obj_node = func_node.child_by_field_name("object")
        prop_node = func_node.child_by_field_name("property")
        return (
            obj_node is not None
            and prop_node is not None
            and obj_node.type == "identifier"
            and self._node_text(obj_node) == constants.LOG_RECEIVER
            and self._node_text(prop_node) in constants.LOG_METHODS
        )

    def _visit_call(self, node):
        func_node = node.child_by_field_name("function")
        if self._is_log_call(func_node):
            self._record_call_site(node, func_node)
        self._visit_children(node)

    def _record_call_site(self, node, func_node):
        line_number = node.start_point[0] + 1
        if line_number in self._seen_lines:
            logger.debug("Second logging call on line %d ignored", line_number)
            return
        self._seen_lines.add(line_number)

        args_node = node.child_by_field_name("arguments")
        if args_node is None:
            raw_arguments = []
        elif args_node.type == "template_string":
            raw_arguments = [args_node]
        else:
            raw_arguments = [
                c for c in args_node.named_children if c.type != "comment"
            ]
        resolved = [self._evaluator.evaluate(arg) for arg in raw_arguments]
        method = self._node_text(func_node.child_by_field_name("property"))

        site = LogCallSite(
            line=self._lines[line_number - 1],
            method=method,
            raw_arguments=raw_arguments,
            context=self.context,
            resolved_arguments=resolved,
        )
        site.pending_fetches = [fetch.task_id for _, _, fetch in site.fetches()]
        logger.debug(
            "console.%s on line %d (%s): %d arguments",
            method,
            line_number,
            site.context.value,
            len(resolved),
        )
        self._sites.append(site)
