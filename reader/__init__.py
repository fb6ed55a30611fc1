from reader.reader import MIPInstance
