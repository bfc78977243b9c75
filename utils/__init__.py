# Request helpers, the identity gate decorator and session encryption.
