"""Frontend Development category."""

CATEGORY = {
    "slug": "frontend",
    "name": "Frontend Development",
    "description": "Build modern user interfaces with React, hooks, and advanced patterns",
    "icon": "🎨",
    "order_index": 3,
    "topics": [
        {
            "slug": "react-basics",
            "name": "React Fundamentals",
            "description": "JSX, components, props, and the React rendering model.",
            "difficulty_level": "beginner",
            "estimated_time": 180,
            "order_index": 1,
            "lessons": [
                {
                    "slug": "intro-jsx",
                    "title": "Introduction to JSX",
                    "summary": "JSX syntax, how it compiles, conditional rendering and lists with keys.",
                    "difficulty_level": "beginner",
                    "estimated_time": 60,
                    "order_index": 1,
                    "key_points": [
                        "JSX compiles to React.createElement calls",
                        "A component returns a single root element; fragments avoid extra DOM nodes",
                        "Only expressions, not statements, go inside curly braces",
                        "List items need a stable key",
                    ],
                    "content": """# Introduction to JSX

JSX looks like HTML but is JavaScript. Babel or SWC turns

```jsx
<h1 className="title">Hello</h1>
```

into `React.createElement("h1", { className: "title" }, "Hello")`.

## Conditional rendering

Use a ternary for either/or, `&&` for show/hide, and an early return for
anything longer.

## Lists

Render arrays with `map` and give every item a `key` that is stable across
renders. Array indices are only safe for lists that never reorder.
""",
                },
            ],
        },
        {
            "slug": "react-hooks",
            "name": "React Hooks",
            "description": "Master useState, useEffect, and custom hooks",
            "difficulty_level": "intermediate",
            "estimated_time": 200,
            "order_index": 2,
            "lessons": [
                {
                    "slug": "state-and-effects",
                    "title": "useState and useEffect",
                    "summary": "Local state, side effects, dependency arrays and cleanup.",
                    "difficulty_level": "intermediate",
                    "estimated_time": 50,
                    "order_index": 1,
                    "prerequisites": ["intro-jsx"],
                    "key_points": [
                        "Calling a state setter schedules a re-render",
                        "Effects run after paint; the dependency array controls when",
                        "Return a cleanup function to undo subscriptions and timers",
                        "Hooks must be called in the same order on every render",
                    ],
                    "content": """# useState and useEffect

## useState

`const [count, setCount] = useState(0)` gives a value and a setter. Use the
functional form `setCount(c => c + 1)` when the next value depends on the
previous one.

## useEffect

Effects synchronize a component with something outside React. The dependency
array lists every value from the component scope the effect reads. An empty
array means "run once after mount".

## Rules of hooks

Only call hooks at the top level of a component or another hook, never inside
conditions or loops.
""",
                },
            ],
        },
    ],
}

EXAMPLES = {
    "intro-jsx": [
        {
            "title": "Rendering a List with Keys",
            "language": "jsx",
            "code": """function TodoList({ todos }) {
  if (todos.length === 0) return <p>Nothing to do.</p>;
  return (
    <ul>
      {todos.map((todo) => (
        <li key={todo.id}>{todo.done ? <s>{todo.text}</s> : todo.text}</li>
      ))}
    </ul>
  );
}
""",
            "explanation": "Keys come from the data, not the index, so React can match items across renders.",
            "order_index": 1,
            "is_interactive": True,
        },
    ],
    "state-and-effects": [
        {
            "title": "Interval with Cleanup",
            "description": "A ticking clock that clears its timer on unmount.",
            "language": "jsx",
            "code": """function Clock() {
  const [now, setNow] = useState(() => new Date());

  useEffect(() => {
    const id = setInterval(() => setNow(new Date()), 1000);
    return () => clearInterval(id);
  }, []);

  return <time>{now.toLocaleTimeString()}</time>;
}
""",
            "order_index": 1,
            "is_interactive": True,
        },
    ],
}

QUIZ = {
    "intro-jsx": [
        {
            "question_text": "What does JSX compile to?",
            "options": [
                "HTML strings",
                "React.createElement calls",
                "Web Components",
                "Template literals",
            ],
            "correct_answer": "React.createElement calls",
            "difficulty": "easy",
            "order_index": 1,
        },
        {
            "question_text": "Why should list items have a stable key?",
            "options": [
                "Keys are required for CSS selectors",
                "So React can match items between renders and preserve their state",
                "Keys make the list render faster on the server only",
                "Without keys, JSX fails to compile",
            ],
            "correct_answer": "So React can match items between renders and preserve their state",
            "difficulty": "medium",
            "order_index": 2,
        },
    ],
    "state-and-effects": [
        {
            "question_text": "When does an effect with an empty dependency array run?",
            "options": [
                "On every render",
                "Once after the first render",
                "Never",
                "Only when props change",
            ],
            "correct_answer": "Once after the first render",
            "difficulty": "medium",
            "order_index": 1,
        },
    ],
}
